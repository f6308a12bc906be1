"""Config Service - typed lookup of runtime settings stored in app_config"""

import json
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.enums import ConfigDataType
from app.models.system import AppConfig

logger = get_logger(__name__)

DEFAULTS: Dict[str, Any] = {
    "max_file_count": 5,
    "max_file_size": 10,  # MB
    "allowed_file_types": [
        "jpg", "jpeg", "png", "gif", "pdf", "doc", "docx", "txt", "zip", "rar",
        "xlsx", "csv",
    ],
}


def convert_value(raw: Optional[str], data_type: str) -> Any:
    """Interpret a stored string according to its declared data_type"""
    if raw is None:
        return None
    if data_type == ConfigDataType.NUMBER:
        number = float(raw)
        return int(number) if number.is_integer() else number
    if data_type == ConfigDataType.BOOLEAN:
        return raw.strip().lower() == "true"
    if data_type == ConfigDataType.JSON:
        return json.loads(raw)
    return raw


class ConfigService:
    @staticmethod
    async def get(
        db: AsyncSession,
        key: str,
        default: Any = None,
        cache: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Typed value for ``key``; falls back to ``default`` then to the
        built-in default when the key is missing, inactive or malformed.
        Pass the same ``cache`` dict for lookups within one request.
        """
        if cache is not None and key in cache:
            return cache[key]

        fallback = default if default is not None else DEFAULTS.get(key)
        result = await db.execute(
            select(AppConfig).where(
                AppConfig.config_key == key,
                AppConfig.is_active.is_(True),
                AppConfig.status != 2,
            )
        )
        row = result.scalar_one_or_none()
        value = fallback
        if row is not None:
            try:
                converted = convert_value(row.config_value, row.data_type)
                if converted is not None:
                    value = converted
            except (ValueError, json.JSONDecodeError):
                logger.warning(
                    "Malformed config value, using default",
                    extra={"config_key": key, "data_type": row.data_type},
                )

        if cache is not None:
            cache[key] = value
        return value

