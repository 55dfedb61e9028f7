"""View/cache consistency core: query building, caching, view state and mutations."""
