"""Flask and Socket.IO front end for the workflow whiteboard."""
