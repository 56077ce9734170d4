from six_cities.core.app_factory import create_app

app = create_app()
