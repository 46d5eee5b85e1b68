"""Wire clients for PostgreSQL and MySQL and a file-backed SQLite-style store."""