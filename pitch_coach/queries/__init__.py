"""SQL access for each table.  Every function takes an open aiosqlite connection."""
