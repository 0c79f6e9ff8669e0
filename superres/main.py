from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from superres.config import ReconstructionConfig, ServiceConfig
from superres.logging_config import setup_logging
from superres.routers.reconstruct import router as reconstruct_router


def create_app(
	service_config: Optional[ServiceConfig] = None,
	reconstruction_config: Optional[ReconstructionConfig] = None,
	configure_logging: bool = True,
) -> FastAPI:
	service_config = service_config or ServiceConfig.from_env()
	reconstruction_config = reconstruction_config or ReconstructionConfig.from_env()
	if configure_logging:
		setup_logging(service_config.log_level, log_dir=service_config.log_dir)

	app = FastAPI(title="Super Resolution API", version="0.1.0")
	app.state.service_config = service_config
	app.state.reconstruction_config = reconstruction_config

	# CORS (adjust origins in production)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=False,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	# Routers
	app.include_router(reconstruct_router)

	return app


# logging is configured by the entry point, not on import
app = create_app(configure_logging=False)


if __name__ == "__main__":
	# Local dev server: uvicorn superres.main:app --reload
	import uvicorn

	_cfg = ServiceConfig.from_env()
	setup_logging(_cfg.log_level, log_dir=_cfg.log_dir)

	uvicorn.run("superres.main:app", host="0.0.0.0", port=8080, reload=True)
