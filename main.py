from imagepdf.api import create_app

app = create_app()


if __name__ == "__main__":
    import uvicorn

    from imagepdf.config import load_config
    from imagepdf.settings import get_settings

    api = load_config(get_settings().config_path).api
    uvicorn.run(app, host=api.host, port=api.port)
