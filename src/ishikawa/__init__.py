def main():
    """Main entry point for the package."""
    # Lazy import so importing the package stays cheap
    from . import cli
    return cli.main()

# Optionally expose other important items at package level
__all__ = [
    "main",
]
