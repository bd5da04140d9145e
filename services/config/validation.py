import logging
import re
from typing import Any, Dict, List

SUPPORTED_PROTOCOLS = {'qbittorrent', 'transmission', 'sabnzbd'}
TRANSFER_MODES = {'move', 'copy', 'hardlink'}


class ConfigValidation:
    """Handles configuration validation for BoutArchive services"""
    
    def __init__(self):
        self.logger = logging.getLogger("ConfigService.Validation")
    
    def validate_config(self, config: Dict[str, Dict[str, str]]) -> Dict[str, bool]:
        """Validate configuration sections and return status."""
        validation_results = {}
        
        media_config = config.get('media_management', {})
        validation_results['media_management'] = self._validate_media_management(media_config)
        
        for section, values in config.items():
            if section.startswith('download_client:'):
                validation_results[section] = self._validate_download_client(section, values)
        
        return validation_results
    
    def validate_media_management(self, media_config: Dict[str, Any]) -> List[str]:
        """Return a list of problems with naming templates, transfer mode and permission values."""
        errors = []
        
        mode = str(media_config.get('transfer_mode') or 'move').lower()
        if mode not in TRANSFER_MODES:
            errors.append(f"Unknown transfer mode: {mode}")
        
        if not str(media_config.get('standard_file_format') or '').strip():
            errors.append("File naming template is empty")
        
        chmod = str(media_config.get('file_chmod') or '').strip()
        if chmod and not re.fullmatch(r'[0-7]{3,4}', chmod):
            errors.append(f"Invalid file_chmod value: {chmod}")
        
        try:
            if int(media_config.get('minimum_free_space_mb') or 0) < 0:
                errors.append("minimum_free_space_mb cannot be negative")
        except (TypeError, ValueError):
            errors.append("minimum_free_space_mb must be an integer")
        
        return errors
    
    def _validate_media_management(self, media_config: Dict[str, str]) -> bool:
        errors = self.validate_media_management(media_config)
        for error in errors:
            self.logger.warning(error)
        if not errors:
            self.logger.debug("Media management configuration validation passed")
        return not errors
    
    def _validate_download_client(self, section: str, client_config: Dict[str, str]) -> bool:
        """Validate a [download_client:<name>] section."""
        if (client_config.get('enabled') or '').lower() not in ('true', '1', 'yes', 'on'):
            return True
        
        protocol = (client_config.get('protocol') or '').lower()
        if protocol not in SUPPORTED_PROTOCOLS:
            self.logger.warning(f"{section}: unsupported protocol '{protocol}'")
            return False
        
        if not client_config.get('host'):
            self.logger.warning(f"{section}: host is required")
            return False
        
        port = client_config.get('port')
        if port:
            try:
                port_num = int(port)
                if not 1 <= port_num <= 65535:
                    self.logger.warning(f"{section}: port out of range: {port}")
                    return False
            except ValueError:
                self.logger.warning(f"{section}: invalid port: {port}")
                return False
        
        if protocol == 'sabnzbd' and not client_config.get('api_key'):
            self.logger.warning(f"{section}: SABnzbd requires an api_key")
            return False
        
        self.logger.debug(f"{section} configuration validation passed")
        return True
