from db import engine, Base
import models #Ensure that the models are imported so they register with Base


def create_all():
    #generate tables if they dont exist; alembic migrations are the real path for postgres
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    create_all()
