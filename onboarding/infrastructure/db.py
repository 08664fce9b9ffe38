from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from ..config import settings

# Пул настраиваем только для PostgreSQL, sqlite работает с пулом по умолчанию
engine_kwargs = {}
if settings.DATABASE_URL.startswith("postgresql"):
    engine_kwargs = {"pool_size": 10, "max_overflow": 20, "pool_recycle": 3600}

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    **engine_kwargs,
)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

async def get_db():
    async with SessionLocal() as db:
        yield db
