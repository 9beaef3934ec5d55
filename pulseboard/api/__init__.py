"""HTTP front end: FastAPI app, routes and badge rendering."""
