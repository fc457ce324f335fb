"""
This module implements the request pipeline: an ordered list of named
stages that together turn a request into a response.

Each stage gets the request and the response-in-progress, and returns
the response (usually the same object). A stage may tag the response
with headers, resolve it (set status and body), or transform it (e.g.
compress the body). Stages after the resolving stage see the final
status and can act on it.
"""

NOT_FOUND_BODY = b"404 page not found\n"


def set_not_found(response, method="GET"):
    """ Resolve the response as a 404. A HEAD request gets the headers of
    the GET response (including its content-length) without the body.
    """
    response.status = 404
    response.headers["content-type"] = "text/plain; charset=utf-8"
    if method == "HEAD":
        response.headers["content-length"] = str(len(NOT_FOUND_BODY))
        response.body = b""
    else:
        response.body = NOT_FOUND_BODY


class Response:
    """ A response in progress. The status is None until a stage resolves
    the response. Header names are lowercase strings. The body is bytes,
    or an async generator of bytes for streamed (e.g. compressed) bodies.
    """

    __slots__ = ("status", "headers", "body")

    def __init__(self, status=None, headers=None, body=b""):
        self.status = status
        self.headers = {} if headers is None else headers
        self.body = body

    def __repr__(self):
        return f"<Response {self.status} with {len(self.headers)} headers>"

    @property
    def resolved(self):
        """ Whether a stage has set the status of this response.
        """
        return self.status is not None


class Stage:
    """ Base class for pipeline stages. Subclasses set ``name`` and
    implement ``process()``.
    """

    name = ""

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name!r}>"

    def process(self, request, response):
        """ Process the request, returning the (updated) response.
        """
        raise NotImplementedError()


class Pipeline:
    """ An ordered sequence of uniquely named stages.
    """

    def __init__(self, stages):
        stages = tuple(stages)
        names = set()
        for stage in stages:
            if not isinstance(stage, Stage):
                raise TypeError(f"Pipeline stages must be Stage objects, not {stage!r}")
            if not (isinstance(stage.name, str) and stage.name):
                raise ValueError(f"Pipeline stage {stage!r} has no name.")
            if stage.name in names:
                raise ValueError(f"Duplicate pipeline stage name {stage.name!r}")
            names.add(stage.name)
        self._stages = stages

    def __repr__(self):
        return f"<Pipeline {' -> '.join(self.names)}>"

    def __getitem__(self, name):
        for stage in self._stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    @property
    def stages(self):
        """ The tuple of stages, in order of execution.
        """
        return self._stages

    @property
    def names(self):
        """ The names of the stages, in order of execution.
        """
        return [stage.name for stage in self._stages]

    def process(self, request):
        """ Run the request through all stages and return the response.
        If no stage resolved the response, it becomes a 404.
        """
        response = Response()
        for stage in self._stages:
            response = stage.process(request, response)
            if not isinstance(response, Response):
                raise ValueError(
                    f"Pipeline stage {stage.name!r} returned {type(response)}, "
                    "not a Response."
                )
        if not response.resolved:
            set_not_found(response, request.method)
        return response
