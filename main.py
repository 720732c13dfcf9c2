from app.main import app
import os

if __name__ == "__main__":
    # Importing app.main prepares the data directory and the harvester
    # database. PORT comes from the hosting environment when set.
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
