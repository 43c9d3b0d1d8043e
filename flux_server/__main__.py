from flux_server.image_server import main

main()
