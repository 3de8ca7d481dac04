from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User
from models.courses import Course
from models.tests import Test
from models.questions import Question
from models.attempts import TestAttempt
