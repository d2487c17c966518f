"""
Recompute workflow: the interactive per-user path and the scheduled batch sweep.

Both paths run ``pipeline.recompute.recompute_user()`` so a given user's
inputs always produce the same stored score regardless of which path ran.
"""
