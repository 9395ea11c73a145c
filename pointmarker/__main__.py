from pointmarker.cli import main

main()
