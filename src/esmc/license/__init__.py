"""License file management, sync and package integrity."""
