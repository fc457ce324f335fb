"""
Serve the build output of a SPA (e.g. ``npm run build`` with Vite) from
``./client/dist``. Any path that does not match a file gets the
``index.html`` shell, so client-side routes work on a page reload.
"""

import spaserve


config = spaserve.Config(static_dir="./client/dist", spa_fallback_file="index.html")
app = spaserve.make_app(config)


if __name__ == "__main__":
    spaserve.run(app, "uvicorn", f"localhost:{config.port}")
