# iac_reviewer/__init__.py
"""
Keep this file minimal so 'iac_reviewer' is always a proper package.

Do NOT import submodules here. Callers import from the submodules directly:
    from iac_reviewer.main import main
    from iac_reviewer.iac.sanitize import sanitize_resources
"""

__version__ = "1.0.0"
