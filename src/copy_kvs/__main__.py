from copy_kvs.cli import main

main()
