from flask_sqlalchemy import SQLAlchemy

# Initialize extensions without app
db = SQLAlchemy()
