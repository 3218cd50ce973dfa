from djbootstrap.cli import main

main()
