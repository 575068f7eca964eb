"""Portal user preferences: profile resolution, session caching and transitions."""
