"""
Initial setup of the service: database tables and the token signing key. Parts
that already exist are left alone.
"""

from groupkeeper.config.settings import Settings
from groupkeeper.core.cryptography import generate_key_pair


def initial_setup(settings: Settings):
    if settings.storage_backend == "sql":
        manager = settings.sync_manager()
        manager.create_all()
        print("Created database tables")

    if settings.private_key is not None or settings.private_key_filename is None:
        return

    if settings.private_key_filename.exists():
        return

    _, private = generate_key_pair(
        key_pair_type=settings.key_pair_type,
        key_password=settings.key_password.get_secret_value(),
    )

    settings.private_key_filename.parent.mkdir(parents=True, exist_ok=True)

    with open(settings.private_key_filename, "wb") as handle:
        handle.write(private)

    settings.private_key_filename.chmod(0o600)
    print("Wrote private key")
