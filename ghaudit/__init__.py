"""ghaudit: audit every repository of a GitHub owner against OPA/Rego policies."""

__version__ = "0.1.0"
