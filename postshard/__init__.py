"""postshard - category-sharded post storage over master/slave shard pairs."""

__version__ = "0.1.0"
