"""
Control Instruction Execution

Resolves the control and integration an instruction targets, dispatches the
instruction topic to a handler and records exactly one audit event for the
outcome.

Usage:
    executor = InstructionExecutor(controls, integrations, appender,
                                   {SET_CONTROL_PARAMETER_TOPIC: write_value})
    status = executor.execute_instruction((user_id, control_config_id), instruction)
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from .clock import SystemClock
from .domain import (ConfigKey, ControlConfiguration, Instruction, InstructionState,
                     InstructionStatus, IntegrationConfiguration)
from .events import (AuditEvent, EventAppender, INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS,
                     INTEGRATION_CONTROL_INSTRUCTION_TAGS)
from .stores import ConfigurationStore

logger = logging.getLogger(__name__)

SET_CONTROL_PARAMETER_TOPIC = "SetControlParameter"

CONTROL_NOT_FOUND = "CIE.0001"
INTEGRATION_NOT_FOUND = "CIE.0002"
TOPIC_NOT_SUPPORTED = "CIE.0003"
PARAMETER_MISSING = "CIE.0004"
HANDLER_FAILED = "CIE.0005"

# (integration, control, value) -> result parameters
InstructionHandler = Callable[[IntegrationConfiguration, ControlConfiguration, Any],
                              Optional[Dict[str, Any]]]


class InstructionExecutor:
    """Executes control instructions with audit logging"""

    def __init__(self, control_store: ConfigurationStore, integration_store: ConfigurationStore,
                 event_appender: EventAppender, handlers: Mapping[str, InstructionHandler],
                 clock=None):
        self.control_store = control_store
        self.integration_store = integration_store
        self.event_appender = event_appender
        self.handlers = dict(handlers)
        self.clock = clock or SystemClock()

    @property
    def supported_topics(self):
        return sorted(self.handlers)

    def execute_instruction(self, control_id: ConfigKey, instruction: Instruction) -> InstructionStatus:
        """
        Execute an instruction against a control

        Args:
            control_id: (user_id, config_id) of the control configuration
            instruction: Instruction to execute; its state is updated in place

        Returns:
            Status carrying the final Completed or Declined state
        """
        user_id, control_config_id = control_id
        control = self.control_store.get(control_id)
        integration = None
        error_code = None
        message = None

        if control is None or not control.enabled:
            error_code = CONTROL_NOT_FOUND
            message = f"Control {control_id} not found or disabled"
        else:
            integration = self.integration_store.get(control.integration_key)
            if integration is None:
                error_code = INTEGRATION_NOT_FOUND
                message = f"Integration {control.integration_key} not found"

        if error_code is None:
            handler = self.handlers.get(instruction.topic)
            if handler is None:
                error_code = TOPIC_NOT_SUPPORTED
                message = f"Instruction topic {instruction.topic} not supported"
            elif control.control_id not in (instruction.parameters or {}):
                error_code = PARAMETER_MISSING
                message = f"No value provided for control {control.control_id}"
            else:
                value = instruction.parameters[control.control_id]
                try:
                    result = handler(integration, control, value)
                    self._finish(instruction, InstructionState.COMPLETED, result)
                except Exception as e:
                    logger.warning(f"Error processing instruction {instruction.instruction_id} "
                                   f"for control {control_id}: {e}")
                    error_code = HANDLER_FAILED
                    message = f"Error processing instruction: {e}"

        if error_code is not None:
            logger.info(f"Declining instruction {instruction.instruction_id} for control {control_id}: {message}")
            self._finish(instruction, InstructionState.DECLINED, {"message": message})

        data = {
            "configId": control_config_id,
            "integrationId": control.integration_id if control is not None else None,
            "instructionId": instruction.instruction_id,
            "state": instruction.state.value,
            "topic": instruction.topic,
            "instruction": instruction.to_dict(),
        }
        if error_code is None:
            event = AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_TAGS, "Instruction executed", data)
        else:
            data["errorCode"] = error_code
            event = AuditEvent(INTEGRATION_CONTROL_INSTRUCTION_ERROR_TAGS, message, data)
        self._append(user_id, event)

        return InstructionStatus(instruction.instruction_id, instruction.state,
                                 self.clock.now(), dict(instruction.result_parameters))

    def _finish(self, instruction: Instruction, state: InstructionState,
                result_parameters: Optional[Dict[str, Any]]) -> None:
        instruction.state = state
        instruction.result_parameters = dict(result_parameters or {})

    def _append(self, user_id: int, event: AuditEvent) -> None:
        try:
            self.event_appender.add_event(user_id, event)
        except Exception as e:
            logger.warning(f"Failed to record instruction event for user {user_id}: {e}")
