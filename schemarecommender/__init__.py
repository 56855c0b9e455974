"""SchemaTree-based property recommendation: model building, workflows and an HTTP recommender."""

__version__ = "0.1.0"