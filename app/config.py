from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/db.sqlite3"
    api_key: str = ""  # empty = no auth check (local dev)
    flickr_api_key: str = ""
    flickr_base_url: str = "https://api.flickr.com/services/rest/"
    flickr_per_page: int = 24
    data_dir: str = "./data"
    images_dir: str = "./data/images"
    cors_origins: list[str] = ["http://localhost:8000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
