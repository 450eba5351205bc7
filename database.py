"""
=============================================================================
DATABASE.PY — Configuración de la Base de Datos
=============================================================================
Este archivo configura la conexión a la base de datos.

En DESARROLLO (tu PC): usa SQLite (un archivo .db)
En PRODUCCIÓN: usa PostgreSQL (variable de entorno DATABASE_URL)

El "engine" es UN SOLO objeto para todo el proceso:
  → se crea la primera vez que alguien lo pide (get_engine)
  → después se reutiliza en todas las peticiones
  → nunca se cierra (el servidor vive mucho tiempo, no hace falta)

Los tests pueden cambiarlo por una BD en memoria con configure_engine().
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# ─────────────────────────────────────────────────────────────────────────────
# CONEXIÓN
# ─────────────────────────────────────────────────────────────────────────────


def normalize_database_url(url: str) -> str:
    """
    Los proveedores dan la URL con "postgres://" pero SQLAlchemy necesita
    "postgresql://". Además usamos psycopg (v3) → "postgresql+psycopg://"
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


DATABASE_URL = normalize_database_url(
    os.getenv("DATABASE_URL", "sqlite:///./motivator.db")
)

# ─────────────────────────────────────────────────────────────────────────────
# ENGINE (cacheado a nivel de proceso)
# ─────────────────────────────────────────────────────────────────────────────

_engine = None

# SessionLocal → "fábrica" de sesiones. Se enlaza al engine cuando este existe.
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def _build_engine(url: str, **kwargs):
    # check_same_thread=False → solo SQLite; FastAPI atiende peticiones
    # síncronas en un pool de hilos
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    return create_engine(url, echo=False, **kwargs)


def get_engine():
    """Devuelve el engine del proceso, creándolo en el primer uso"""
    global _engine
    if _engine is None:
        _engine = _build_engine(DATABASE_URL)
        SessionLocal.configure(bind=_engine)
    return _engine


def configure_engine(url: str, **kwargs):
    """
    Sustituye el engine del proceso por uno nuevo.

    Pensado para tests:
      configure_engine("sqlite://", poolclass=StaticPool)
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = _build_engine(normalize_database_url(url), **kwargs)
    SessionLocal.configure(bind=_engine)
    return _engine


# ─────────────────────────────────────────────────────────────────────────────
# BASE (Clase base para los modelos)
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def get_db():
    """
    Generador que crea una sesión de BD y la cierra al terminar.

    Se usa como "dependencia" en FastAPI:
      @app.get("/algo")
      def mi_endpoint(db: Session = Depends(get_db)):
          ...
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Crea todas las tablas en la BD si no existen.
    Se llama una vez al arrancar la aplicación.
    """
    # Importar los modelos para que se registren en Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
