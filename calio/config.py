"""
設定. .env と環境変数から読む
"""
import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///calio.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False  # 省エネ

    # "今日" を決めるタイムゾーン
    CALIO_TIMEZONE = os.getenv("CALIO_TIMEZONE", "Asia/Tokyo")
    # monday / sunday
    CALIO_WEEK_START = os.getenv("CALIO_WEEK_START", "monday")
    # 一覧ページのデフォルト期間 (日)
    CALIO_RANGE_DAYS = int(os.getenv("CALIO_RANGE_DAYS", "30"))
    CALIO_LOG_LEVEL = os.getenv("CALIO_LOG_LEVEL", "INFO").upper()
