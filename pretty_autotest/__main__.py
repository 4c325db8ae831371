from pretty_autotest.cli import main

main()
