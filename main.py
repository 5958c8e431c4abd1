from activity_hub.main import create_app

app = create_app()
