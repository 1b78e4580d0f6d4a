from ghast_ctl.cli import main

main()
