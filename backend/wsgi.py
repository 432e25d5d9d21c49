from vendor_backend import create_app

app = create_app()
