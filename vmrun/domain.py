"""libvirt domain XML generation for vmrun."""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from xml.etree.ElementTree import Element, SubElement, tostring

from vmrun.constants import DOMAIN_PREFIX, TRANSLATION_DIR, TRANSLATION_TAG
from vmrun.directory import VMDirectory
from vmrun.exceptions import ConstructionError
from vmrun.models import LinuxGuest, MacOSGuest, VMConfig


def domain_name(vm_name: str) -> str:
    return f"{DOMAIN_PREFIX}{vm_name}"


def _element_to_str(root: Element) -> str:
    from xml.dom.minidom import parseString

    raw = tostring(root, encoding="unicode")
    return parseString(raw).documentElement.toprettyxml(indent="  ").strip()


def _image_format(path: Path) -> str:
    return "qcow2" if path.suffix.lower() == ".qcow2" else "raw"


def render_domain_xml(
    directory: VMDirectory,
    config: VMConfig,
    gui: bool,
    mount: Optional[Path],
    use_kvm: bool = True,
    translation_dir: Path = TRANSLATION_DIR,
) -> str:
    """Describe the VM as a libvirt domain."""
    guest = config.guest
    domain = Element("domain", type="kvm" if use_kvm else "qemu")
    SubElement(domain, "name").text = domain_name(directory.name)
    SubElement(domain, "memory", unit="MiB").text = str(config.memory_mb)
    SubElement(domain, "vcpu").text = str(config.cpus)

    if isinstance(guest, LinuxGuest):
        os_el = SubElement(domain, "os", firmware="efi") if guest.uefi else SubElement(domain, "os")
        SubElement(os_el, "type").text = "hvm"
        disk_bus, nic_model, video_model = "virtio", "virtio", "virtio"
    elif isinstance(guest, MacOSGuest):
        os_el = SubElement(domain, "os")
        SubElement(os_el, "type", machine="q35").text = "hvm"
        SubElement(os_el, "loader", readonly="yes", type="pflash").text = str(directory.path / guest.loader)
        if guest.nvram:
            SubElement(os_el, "nvram").text = str(directory.path / guest.nvram)
        disk_bus, nic_model, video_model = "sata", "vmxnet3", "vga"
    else:
        raise ConstructionError(f"unsupported guest, os={guest!r}")
    SubElement(os_el, "boot", dev="hd")

    features = SubElement(domain, "features")
    SubElement(features, "acpi")
    SubElement(features, "apic")
    if use_kvm:
        SubElement(domain, "cpu", mode="host-passthrough")

    if config.translation:
        # virtiofs needs guest memory shared with the daemon
        backing = SubElement(domain, "memoryBacking")
        SubElement(backing, "source", type="memfd")
        SubElement(backing, "access", mode="shared")

    SubElement(domain, "on_poweroff").text = "destroy"
    SubElement(domain, "on_reboot").text = "restart"
    SubElement(domain, "on_crash").text = "destroy"

    devices = SubElement(domain, "devices")

    disk_path = directory.path / config.disk
    disk = SubElement(devices, "disk", type="file", device="disk")
    SubElement(disk, "driver", name="qemu", type=_image_format(disk_path))
    SubElement(disk, "source", file=str(disk_path))
    SubElement(disk, "target", dev="vda" if disk_bus == "virtio" else "sda", bus=disk_bus)

    if mount is not None:
        mount_path = mount.expanduser().resolve()
        cdrom = SubElement(devices, "disk", type="file", device="cdrom")
        SubElement(cdrom, "driver", name="qemu", type="raw")
        SubElement(cdrom, "source", file=str(mount_path))
        SubElement(cdrom, "target", dev="sdb", bus="sata")
        SubElement(cdrom, "readonly")

    if config.translation:
        fs_el = SubElement(devices, "filesystem", type="mount", accessmode="passthrough")
        SubElement(fs_el, "driver", type="virtiofs")
        SubElement(fs_el, "source", dir=str(translation_dir))
        SubElement(fs_el, "target", dir=TRANSLATION_TAG)
        SubElement(fs_el, "readonly")

    iface = SubElement(devices, "interface", type="user")
    SubElement(iface, "model", type=nic_model)

    SubElement(devices, "controller", type="usb", model="qemu-xhci")
    SubElement(devices, "input", type="tablet", bus="usb")
    SubElement(devices, "input", type="keyboard", bus="usb")

    serial = SubElement(devices, "serial", type="pty")
    SubElement(serial, "target", port="0")
    console = SubElement(devices, "console", type="pty")
    SubElement(console, "target", type="serial", port="0")

    if gui:
        SubElement(devices, "graphics", type="spice", autoport="yes")
        video = SubElement(devices, "video")
        SubElement(video, "model", type=video_model, heads="1", primary="yes")
        vdagent = SubElement(devices, "channel", type="spicevmc")
        SubElement(vdagent, "target", type="virtio", name="com.redhat.spice.0")

    SubElement(devices, "memballoon", model="virtio")
    rng = SubElement(devices, "rng", model="virtio")
    SubElement(rng, "backend", model="random").text = "/dev/urandom"

    return _element_to_str(domain)
