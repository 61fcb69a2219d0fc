from nimproxy.cli import main

main()
