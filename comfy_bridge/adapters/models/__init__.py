from .loader import GltfFileLoader, ModelLoader, validate_gltf

__all__ = ["GltfFileLoader", "ModelLoader", "validate_gltf"]
