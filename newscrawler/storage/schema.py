"""Table definitions for the article store.

The same statements run on SQLite and PostgreSQL.
"""

ARTICLES_SCHEMA = """
CREATE TABLE IF NOT EXISTS articles (
    website TEXT NOT NULL,
    url TEXT NOT NULL PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    content TEXT NOT NULL,
    author TEXT,
    date TIMESTAMP NOT NULL
)
"""

ARTICLES_WEBSITE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_articles_website ON articles (website)
"""

SELECT_ARTICLE_URLS_FOR_WEBSITE = """
SELECT url FROM articles WHERE website = :website
"""

SELECT_LATEST_ARTICLES_FOR_WEBSITE = """
SELECT url, title, description, content, author, date
FROM articles WHERE website = :website
ORDER BY date DESC LIMIT :limit
"""

INSERT_ARTICLE = """
INSERT INTO articles (website, url, title, description, content, author, date)
VALUES (:website, :url, :title, :description, :content, :author, :date)
"""

# Statements run when the store is opened, in order
TABLE_SCHEMAS = [
    ARTICLES_SCHEMA,
    ARTICLES_WEBSITE_INDEX,
]
