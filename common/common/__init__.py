"""storefront 서비스들이 공유하는 공통 유틸 (로깅, Mongo, 미들웨어, 타입)."""
