"""StudioSync - reconciles AI generation jobs against the track catalog."""

__version__ = "0.1.0"
