import asyncio
import logging
from typing import Callable, Optional, Sequence, Set

from lsprotocol import types
from pygls.protocol import LanguageServerProtocol, lsp_method
from pygls.server import LanguageServer

from jsls import __version__
from jsls.config.settings import SettingsStore

from .features import default_features
from .features.base import Feature, FeatureContext
from .host import FeatureHost, HostState, merge_capabilities
from .utils.documents import DocumentResolver, LiveDocuments
from .utils.pubsub import MessageBus, Messages

logger = logging.getLogger(__name__)

FeatureFactory = Callable[[FeatureContext], Sequence[Feature]]


class JSLanguageServer(LanguageServer):
    """pygls server that carries the feature host for its protocol."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.host: Optional[FeatureHost] = None


class HostProtocol(LanguageServerProtocol):
    """Language server protocol that lets the feature host declare capabilities.

    The features' declarations are collected before pygls builds its own
    capabilities and are merged over them when pygls assigns the result.
    """

    def __init__(self, *args, **kwargs):
        self._server_capabilities = types.ServerCapabilities()
        self._feature_capabilities = {}
        super().__init__(*args, **kwargs)

    @property
    def server_capabilities(self):
        return self._server_capabilities

    @server_capabilities.setter
    def server_capabilities(self, value: types.ServerCapabilities):
        if self._feature_capabilities:
            computed = self._converter.unstructure(value)
            merged = merge_capabilities(computed, self._feature_capabilities)
            value = self._converter.structure(merged, types.ServerCapabilities)
        self._server_capabilities = value

    @lsp_method(types.INITIALIZE)
    def lsp_initialize(self, params: types.InitializeParams) -> types.InitializeResult:
        host = self._server.host
        if host is not None:
            # A feature failure propagates and is answered as an error response
            self._feature_capabilities = host.initialize(params)
        return super().lsp_initialize(params)


class JSLSPServer:
    """
    LSP Server for JSON Schema documents.

    The server binds a pygls connection and its live documents to an ordered
    list of features, providing:
    - Diagnostics for schema syntax and meta-schema validation
    - Completion for ``$schema`` dialects and schema keywords
    - Workspace schema discovery and file watching

    Transport notifications are republished on the message bus so features
    can react to them without registering protocol handlers of their own.
    """

    def __init__(self, features: Optional[FeatureFactory] = None,
                 default_dialect: Optional[str] = None, port: Optional[int] = None):
        """
        Initialize the server.

        Args:
            features: Builds the features from the shared context.
                Defaults to ``default_features``.
            default_dialect: Dialect assumed for schemas without ``$schema``
            port: Port number for TCP mode
        """
        self.port = port or 3000
        self.ls = JSLanguageServer("jsonschema-language-server", __version__, protocol_cls=HostProtocol)

        # Core components
        self.bus = MessageBus()
        self.documents = LiveDocuments(self.ls)
        self.resolver = DocumentResolver(self.documents)
        self.context = FeatureContext(
            bus=self.bus,
            resolver=self.resolver,
            settings=SettingsStore(default_dialect=default_dialect),
        )

        factory = features or default_features
        self.host = FeatureHost(self.ls, self.documents, factory(self.context))
        self.ls.host = self.host
        self._background: Set[asyncio.Future] = set()

        self._register_handlers()

        logger.info(f"JSON Schema LSP Server created with features: "
                    f"{', '.join(f.name for f in self.host.features)}")
        if default_dialect:
            logger.info(f"Using default dialect: {default_dialect}")

    @property
    def state(self) -> HostState:
        return self.host.state

    def _register_handlers(self):
        """Register LSP protocol handlers and bridge them onto the message bus."""

        @self.ls.feature(types.INITIALIZED)
        def initialized(params: types.InitializedParams):
            """Handle the initialized notification."""
            logger.info("LSP: Client initialized")
            # Features wire their handlers before the next message is read
            self.host.load()
            self._spawn(self.host.finish_initialization())

        @self.ls.feature(types.SHUTDOWN)
        def shutdown(params=None):
            """Handle LSP shutdown request."""
            logger.info("LSP: Handling shutdown request")
            self.shutdown()
            return None

        @self.ls.feature(types.EXIT)
        def exit_handler(params=None):
            """Handle exit notification."""
            logger.info("LSP: Server exiting")

        @self.ls.feature(types.TEXT_DOCUMENT_DID_OPEN)
        def did_open(params: types.DidOpenTextDocumentParams):
            uri = params.text_document.uri
            # The editor now owns this document
            self.resolver.invalidate(uri)
            self.bus.publish(Messages.DOCUMENT_OPENED, params)

        @self.ls.feature(types.TEXT_DOCUMENT_DID_CHANGE)
        def did_change(params: types.DidChangeTextDocumentParams):
            self.bus.publish(Messages.DOCUMENT_CHANGED, params)

        @self.ls.feature(types.TEXT_DOCUMENT_DID_CLOSE)
        def did_close(params: types.DidCloseTextDocumentParams):
            self.bus.publish(Messages.DOCUMENT_CLOSED, params)

        @self.ls.feature(types.WORKSPACE_DID_CHANGE_WATCHED_FILES)
        def did_change_watched_files(params: types.DidChangeWatchedFilesParams):
            self.bus.publish(Messages.WATCHED_FILES_CHANGED, params)

        @self.ls.feature(types.WORKSPACE_DID_CHANGE_WORKSPACE_FOLDERS)
        def did_change_workspace_folders(params: types.DidChangeWorkspaceFoldersParams):
            self.bus.publish(Messages.WORKSPACE_FOLDERS_CHANGED, params)

        @self.ls.feature(types.WORKSPACE_DID_CHANGE_CONFIGURATION)
        def did_change_configuration(params: types.DidChangeConfigurationParams):
            self.bus.publish(Messages.CONFIGURATION_CHANGED, params)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _cleanup_resources(self):
        """Clean up server resources after the features have shut down."""
        logger.info("Cleaning up LSP server resources...")

        for task in list(self._background):
            task.cancel()

        try:
            self.bus.clear()
        except Exception as e:
            logger.error(f"Error clearing message bus: {e}")

        try:
            self.resolver.clear()
        except Exception as e:
            logger.error(f"Error clearing document store: {e}")

        logger.info("LSP server resource cleanup completed")

    def start(self, host: str = "localhost", use_tcp: bool = False):
        """Start the LSP server

        Args:
            host: Host to bind to when using TCP (default: localhost)
            use_tcp: Whether to use TCP instead of stdio (default: False)
        """
        logger.info("Starting JSON Schema LSP Server...")

        try:
            if use_tcp:
                logger.info(f"Starting LSP TCP server on {host}:{self.port}...")
                self.ls.start_tcp(host, self.port)
                logger.info("LSP TCP server finished")
            else:
                logger.info("Starting LSP IO server...")
                self.ls.start_io()
                logger.info("LSP IO server finished")
        except KeyboardInterrupt:
            logger.info("Received shutdown signal")
        except BrokenPipeError:
            logger.info("Broken pipe - client disconnected")
        except EOFError:
            logger.info("EOF - no more input from client")
        except Exception as e:
            logger.error(f"Error in LSP server: {e}", exc_info=e)
        finally:
            self.shutdown()

    def shutdown(self):
        """Shut down every feature and release server resources"""
        if self.host.state == HostState.SHUTTING_DOWN:
            return
        logger.info("Shutting down JSON Schema LSP Server...")
        self.host.shutdown()
        self._cleanup_resources()
