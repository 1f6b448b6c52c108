"""Party domain: store, notification and idle reaping."""
