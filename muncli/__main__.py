from muncli.cli.main import main

main()
