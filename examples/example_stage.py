"""
Demonstrate adding a stage to the pipeline. The default stages are
composed with ``make_pipeline()``, so a custom list of stages can add
behavior (here a header that says which stages ran).
"""

import spaserve


class StagesHeader(spaserve.Stage):
    name = "stages-header"

    def __init__(self, names):
        self._value = ", ".join(names)

    def process(self, request, response):
        response.headers["x-stages"] = self._value
        return response


config = spaserve.load_config()
cache = spaserve.AssetCache(config.static_dir, [config.spa_fallback_file])
cache.load()

stages = list(spaserve.make_pipeline(config, cache).stages)
stages.append(StagesHeader([stage.name for stage in stages]))
app = spaserve.to_asgi(spaserve.Pipeline(stages))


if __name__ == "__main__":
    spaserve.run(app, "uvicorn", f"localhost:{config.port}")
