"""
=============================================================================
AUTH.PY — Sistema de Autenticación
=============================================================================
Gestiona:
  - Hashing de contraseñas (nunca guardar contraseñas en texto plano)
  - Creación y verificación de tokens JWT
  - Obtener el usuario actual desde un token

Flujo:
  1. Usuario envía email + contraseña (/auth/signin)
  2. Si son correctos, el servidor genera un JWT
  3. El usuario envía ese JWT en cada petición: "Authorization: Bearer <token>"
  4. get_current_user lo verifica y entrega el usuario al endpoint

El resto de la API solo recibe el usuario ya validado.
"""

import os
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from database import get_db
from models import User

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("SECRET_KEY", "motivator-dev-secret-key-cambiar-en-produccion")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))


# ─────────────────────────────────────────────────────────────────────────────
# HASHING DE CONTRASEÑAS
# ─────────────────────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    """Convierte una contraseña en texto plano a un hash seguro"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compara una contraseña en texto plano con un hash almacenado"""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


# ─────────────────────────────────────────────────────────────────────────────
# TOKENS JWT
# ─────────────────────────────────────────────────────────────────────────────

def create_access_token(user_id: int, email: str) -> str:
    """
    Crea un token JWT con el ID y email del usuario.

    El token contiene:
      - sub (subject): el ID del usuario
      - email: para referencia
      - exp (expiration): cuándo caduca
    """
    expire = datetime.utcnow() + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": expire
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Devuelve los datos del token, o None si es inválido o ha expirado"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCIAS: OBTENER USUARIO ACTUAL
# ─────────────────────────────────────────────────────────────────────────────

security = HTTPBearer()
# auto_error=False → si no hay header, devuelve None en vez de lanzar error
optional_security = HTTPBearer(auto_error=False)


def _user_from_token(token: str, db: Session) -> Optional[User]:
    payload = decode_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None

    return db.query(User).filter(User.id == user_id).first()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Extrae el usuario del token JWT.

    Se usa así en los endpoints:
      @app.get("/goals")
      def list_goals(user: User = Depends(get_current_user)):
          ...

    Token inválido, caducado o de un usuario que ya no existe → 401
    """
    user = _user_from_token(credentials.credentials, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido o expirado",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Como get_current_user, pero un visitante anónimo (o con token malo) → None"""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, db)
