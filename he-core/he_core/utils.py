from datetime import datetime, timezone


def print_banner(service_name: str, version: str = "1.0.0"):
    """
    Print the HazardEye startup banner.

    Args:
        service_name: Name of the service starting up (e.g., "HE-Core")
        version: Version number of the service (default: "1.0.0")
    """
    print("=" * 80)
    print("  HAZARDEYE - Industrial Safety Incident Tracking")
    print("=" * 80)
    print(f"  Service:        {service_name}")
    print(f"  Version:        {version}")
    print(f"  Started:        {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("-" * 80)
    print("  Description:    Entity store, role scoping and task lifecycle for the portals")
    print("  Portals:        Supervisor | Employee")
    print("=" * 80)
    print()


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Timezone-aware current local time."""
    return datetime.now().astimezone()


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes coming off the wire as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
