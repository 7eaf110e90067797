from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

from core.exceptions import LotteryException, ConcurrentModification

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./lottery_escrow.db"
    # 7 天（以秒為單位），若時鐘使用毫秒需調整
    grace_period: int = 7 * 24 * 60 * 60
    return_change: bool = True
    enforce_min_participants: bool = False

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


def build_engine(database_url: str):
    """
    依照 URL 建立 Engine

    SQLite 需要特殊設定：connect_args={"check_same_thread": False}
    並拉長 busy timeout，讓多執行緒寫入時排隊而不是直接失敗
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


settings = get_settings()

engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保每個彩券操作都是一個不可分割的步驟

    使用方式：
        @transactional
        def buy(db: Session, lottery_id, ...):
            # 所有 DB 操作都在一個 transaction 內
            db.add(SoldNumber(...))
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback（任何 guard 失敗都不會留下部分修改）
        - 異常會被重新拋出（讓上層處理）
        - 版本衝突（StaleDataError）會轉成 ConcurrentModification

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except StaleDataError as e:
            logger.warning(f"Stale write in {func.__name__}: {e}")
            db.rollback()
            raise ConcurrentModification(str(e)) from e
        except LotteryException as e:
            logger.info(f"{func.__name__} rejected: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
