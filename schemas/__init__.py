"""
Pydantic schemas for data validation.

Schemas:
    device_apps: DeviceRecord, one parsed line of an installed-apps log

Usage:
    from schemas.device_apps import DeviceRecord

Example:
    record = DeviceRecord(
        dev_type="idfa",
        dev_id="1rfw452y52g2gq4g",
        lat=55.55,
        lon=42.42,
        apps=(1423, 43, 567)
    )

    assert record.store_key == "idfa:1rfw452y52g2gq4g"
"""

__all__ = [
    "DeviceRecord",
]
