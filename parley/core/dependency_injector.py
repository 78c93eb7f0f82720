import inspect
from collections import ChainMap

DependencyGraph = dict[str, list[str]]


class DependencyInjector(object):
    """
    Builds objects whose constructor parameters are resolved by name.

    A class with `def __init__(self, profile_service, session_service)` is
    given whatever was registered (or built) under the names
    `profile_service` and `session_service`. Every name is constructed exactly
    once, so two services depending on `profile_service` share one instance.

    # Example
    ```
    class ProfileService:
        def __init__(self):
            pass

    class RelayService:
        def __init__(self, profile_service, loop):
            self.profile_service = profile_service

    injector = DependencyInjector()
    injector.add_injectables(loop=asyncio.get_running_loop())
    services = injector.build_classes({
        "profile_service": ProfileService,
        "relay_service": RelayService,
    })
    assert (
        services["relay_service"].profile_service
        is services["profile_service"]
    )
    ```
    """

    def __init__(self) -> None:
        # Objects which are available to the constructors of injected objects
        self.injectables: dict[str, object] = {}

    def add_injectables(
        self, injectables: dict[str, object] = {}, **kwargs: object
    ) -> None:
        """
        Register additional objects that can be requested by injected classes.
        """
        self.injectables.update(injectables)
        self.injectables.update(kwargs)

    def build_classes(
        self, classes: dict[str, type] = {}, **kwargs: type
    ) -> dict[str, object]:
        """
        Resolve dependencies by name and instantiate each class.
        """
        classes = {**kwargs, **classes}

        graph = self._make_dependency_graph(classes)
        params = {name: list(deps) for name, deps in graph.items()}

        instances = self._build_in_order(graph, classes, params)
        self.add_injectables(**instances)
        return instances

    def _make_dependency_graph(
        self,
        classes: dict[str, type]
    ) -> DependencyGraph:
        graph: DependencyGraph = {name: [] for name in self.injectables}

        for name, klass in classes.items():
            signature = inspect.signature(klass.__init__)
            # Strip off the `self` parameter
            graph[name] = [
                param.name
                for param in list(signature.parameters.values())[1:]
                if param.kind not in (
                    inspect.Parameter.VAR_POSITIONAL,
                    inspect.Parameter.VAR_KEYWORD
                )
            ]

        return graph

    def _build_in_order(
        self,
        graph: DependencyGraph,
        classes: dict[str, type],
        params: dict[str, list[str]]
    ) -> dict[str, object]:
        """
        Repeatedly build every node whose dependencies are satisfied. Raises
        RuntimeError for missing or cyclic dependencies.
        """
        instances: dict[str, object] = {}
        resolved = ChainMap(instances, self.injectables)

        while graph:
            ready = [name for name, deps in graph.items() if not deps]
            if not ready:
                missing = {
                    dep for deps in graph.values()
                    for dep in deps if dep not in graph
                }
                if missing:
                    raise RuntimeError(
                        f"Some dependencies could not be resolved: {missing}"
                    )
                raise RuntimeError(
                    f"Could not resolve cyclic dependency: {tuple(graph)}"
                )

            for name in ready:
                # Injected objects are used as is and not returned
                if name not in self.injectables:
                    instances[name] = classes[name](**{
                        param: resolved[param] for param in params[name]
                    })
                del graph[name]

            for name, deps in graph.items():
                graph[name] = [dep for dep in deps if dep not in ready]

        return instances
