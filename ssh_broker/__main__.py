from ssh_broker.app import main

main()
